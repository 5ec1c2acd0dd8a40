from __future__ import annotations

import io
from pathlib import Path
from typing import List, Union

import pandas as pd
from pydantic import ValidationError

from merchant_twin.api.schemas import ISSUE_TYPES, MerchantProfile
from merchant_twin.simulation.inputs import ConfigurationError
from merchant_twin.simulation.profiles import PROFILE_COLUMNS


REQUIRED_COLUMNS = set(PROFILE_COLUMNS)


def _is_missing(val: object) -> bool:
    if val is None:
        return True
    try:
        if pd.isna(val):
            return True
    except (TypeError, ValueError):
        pass
    if isinstance(val, str) and val.strip() == "":
        return True
    return False


def read_profiles_csv_bytes(csv_bytes: bytes, *, max_rows: int = 100_000) -> List[MerchantProfile]:
    """
    Parse a merchants CSV (snake_case header) into validated profiles.
    Extra columns are ignored. Every bad row is reported, as "Row n: ...",
    in a single ConfigurationError; the header is row 1.
    """
    try:
        df = pd.read_csv(
            io.BytesIO(csv_bytes),
            dtype=str,  # parse everything as str first; the model coerces
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"unreadable merchants CSV: {e}") from e

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ConfigurationError(f"missing required columns: {sorted(missing)}")

    if len(df) > max_rows:
        raise ConfigurationError(f"too many rows: {len(df)} > {max_rows}")

    profiles: List[MerchantProfile] = []
    errors: List[str] = []
    seen: set[str] = set()

    for i, row in enumerate(df[PROFILE_COLUMNS].to_dict(orient="records")):
        row_number = i + 2
        data = {k: (None if _is_missing(v) else str(v).strip()) for k, v in row.items()}
        try:
            profile = MerchantProfile.model_validate(data)
        except ValidationError as e:
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"])
                errors.append(f"Row {row_number}: {field}: {err['msg']}")
            continue
        if profile.issue_type not in ISSUE_TYPES:
            errors.append(f'Row {row_number}: invalid issue_type "{profile.issue_type}"')
            continue
        if profile.merchant_id in seen:
            errors.append(f"Row {row_number}: duplicate merchant_id {profile.merchant_id}")
            continue
        seen.add(profile.merchant_id)
        profiles.append(profile)

    if errors:
        raise ConfigurationError(
            f"CSV validation failed with {len(errors)} error(s):\n" + "\n".join(f"  - {e}" for e in errors)
        )
    return profiles


def read_profiles_csv(path: Union[str, Path]) -> List[MerchantProfile]:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"CSV file not found: {path}")
    return read_profiles_csv_bytes(path.read_bytes())
