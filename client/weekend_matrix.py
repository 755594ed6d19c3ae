"""Bulk commit of a talent's weekend matrix for one year."""
import logging
from typing import Any, Dict, List, Union

from client.auth import AuthClient
from client.errors import AuthenticationRequired, BackendError
from client.functions import FunctionsClient
from processor.models import COMMIT_MODES, CalendarEvent, CommitBatch

logger = logging.getLogger(__name__)

COMMIT_FUNCTION = 'import-weekend-matrix-commit'


def commit_weekend_matrix(
    auth: AuthClient,
    functions: FunctionsClient,
    talent_id: str,
    year: int,
    mode: str,
    events: List[Union[CalendarEvent, Dict[str, Any]]]
) -> Dict[str, Any]:
    """
    Submit a full talent/year event batch to the commit function.

    The batch goes out as a single request. The function's response is
    returned unchanged; counts are not reconciled here.

    Args:
        auth: Session provider for the caller
        functions: Function invoker
        talent_id: Talent whose calendar is committed
        year: Calendar year of the batch
        mode: 'merge' keeps unlisted events, 'replace' removes them
        events: CalendarEvent objects or event dictionaries

    Returns:
        Commit response: {ok, counts: {created, updated, skipped, failed}, errors?}

    Raises:
        ValueError: If mode is not 'merge' or 'replace'
        AuthenticationRequired: If there is no session with an access token
        RemoteRejected: If the function returns an error
        NetworkFailure: If the request fails in transport
    """
    if mode not in COMMIT_MODES:
        raise ValueError(f"Unknown commit mode: {mode}")

    session = auth.get_session()
    if session is None or not session.access_token:
        raise AuthenticationRequired()

    batch = CommitBatch(talent_id=talent_id, year=year, mode=mode, events=events)

    try:
        return functions.invoke(
            COMMIT_FUNCTION,
            batch.to_payload(),
            access_token=session.access_token,
            default_error='Import failed'
        )
    except BackendError as e:
        logger.error(
            f"Weekend Matrix commit failed: {e}",
            extra={'talent_id': talent_id, 'year': year, 'mode': mode}
        )
        raise
