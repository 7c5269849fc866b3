"""Base Pydantic model for vaultcourier.

All vaultcourier models inherit from this class so that validation and
mutability behave the same way everywhere:

- Strict field validation (no extra fields allowed)
- Immutable instances, safe to share between tasks and threads

Example:
    >>> from vaultcourier.models import VaultCourierBaseModel
    >>>
    >>> class MountModel(VaultCourierBaseModel):
    ...     path: str
    >>>
    >>> MountModel(path="secret").model_dump()
    {'path': 'secret'}
"""

from pydantic import BaseModel, ConfigDict


class VaultCourierBaseModel(BaseModel):
    """Base model for all vaultcourier Pydantic models.

    - extra="forbid": Rejects any fields not defined in the model
    - frozen=True: Makes instances immutable for thread safety
    """

    model_config = ConfigDict(extra="forbid", frozen=True)
