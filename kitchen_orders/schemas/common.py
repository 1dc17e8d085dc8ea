from typing import Annotated, Literal, Optional, Union

from pydantic import AfterValidator, BeforeValidator, EmailStr, StringConstraints
from tortoise.models import Model

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# Stored and looked up lower-cased, so login and uniqueness checks ignore case
EmailAddress = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(str.lower)]
# Mail settings start out blank until an admin fills them in
OptionalEmailAddress = Union[Literal[""], EmailAddress]


def loaded(obj, relation: str) -> Optional[Model]:
    """Returns a related instance only if it was fetched (select_related/fetch_related)."""
    value = getattr(obj, relation, None)
    return value if isinstance(value, Model) else None
