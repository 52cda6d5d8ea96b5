import asyncio
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError


class ServiceError(Exception):
    status_code = 400

    @property
    def code(self) -> str:
        return type(self).__name__


class GiveawayNotFound(ServiceError):
    status_code = 404


class EntryNotFound(ServiceError):
    status_code = 404


class WinnerNotFound(ServiceError):
    status_code = 404


class GiveawayClosed(ServiceError):
    pass


class StateRestricted(ServiceError):
    pass


class InvalidState(ServiceError):
    pass


class ConsentRequired(ServiceError):
    pass


class InvalidContact(ServiceError):
    pass


class DuplicateEntry(ServiceError):
    status_code = 409


class BonusNotEnabled(ServiceError):
    pass


class AlreadyClaimed(ServiceError):
    status_code = 409


class AlreadySelected(ServiceError):
    status_code = 409


class NoEntries(ServiceError):
    pass


class InvalidWinnerAction(ServiceError):
    pass


class TransientStoreFailure(ServiceError):
    status_code = 503


@asynccontextmanager
async def translate_store_errors(operation: str):
    """Report timeouts and lost connections as TransientStoreFailure."""
    try:
        yield
    except (asyncio.TimeoutError, PoolTimeoutError) as exc:
        raise TransientStoreFailure(f"{operation} timed out") from exc
    except OperationalError as exc:
        raise TransientStoreFailure(f"{operation} failed: store unavailable") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise TransientStoreFailure(f"{operation} failed: connection lost") from exc
        raise
