"""
Base Schema Models for batch7702

This module defines the base model every other schema inherits from and the
shared on-chain numeric limits.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Dict, Any

from pydantic import BaseModel, ConfigDict


#: Largest value representable by a Solidity ``uint256``.
MAX_UINT256: int = 2**256 - 1


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Ensures a consistent, deterministic JSON representation (sorted keys, no
    extra whitespace) suitable for confirmation payloads and hashing.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="hex")

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json")`` turns nested models, enums and bytes into
        plain types; ``json.dumps`` with sorted keys and compact separators
        makes the output byte-stable.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()
