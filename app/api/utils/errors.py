import uuid

from dependency_injector.wiring import Provide, inject

from app.container import ApplicationContainer
from app.exceptions import EntityNotFoundError, InvalidDataError
from app.models.account import Account
from app.repos.account import AccountRepo


def new_request_id() -> str:
    return str(uuid.uuid4())


@inject
async def get_account_or_fail(
    user_id: int, account_id: str, account_repo: AccountRepo = Provide[ApplicationContainer.repos.account]
) -> Account:
    """
    Resolve an account id from the path for the given user.

    Raises:
        InvalidDataError: the id is not a UUID
        EntityNotFoundError: no such account for this user
    """
    try:
        account_uuid = uuid.UUID(account_id)
    except ValueError as e:
        raise InvalidDataError("Invalid account id") from e

    account = await account_repo.get_by_user_and_uuid(user_id, account_uuid)
    if account is None:
        raise EntityNotFoundError("Account not found")
    return account
