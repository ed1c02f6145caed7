import threading

from assessment.core.exceptions import ConflictException
from assessment.models.attempt import Attempt, AttemptStatus
from assessment.services.attempts import AttemptService
from assessment.services.notifications import RecordingNotifier
from assessment.services.roster import SQLRosterService

from conftest import ALICE, NOW


def test_racing_starts_create_exactly_one_attempt(session_factory, quiz):
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def start():
        session = session_factory()
        service = AttemptService(session, roster=SQLRosterService(session), notifier=RecordingNotifier())
        try:
            barrier.wait(timeout=10)
            service.start(quiz.id, ALICE, now=NOW)
            result = "started"
        except ConflictException:
            result = "conflict"
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=start) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(outcomes) == ["conflict", "started"]

    check = session_factory()
    try:
        attempts = check.query(Attempt).filter(Attempt.quiz_id == quiz.id).all()
    finally:
        check.close()
    assert len(attempts) == 1
    assert attempts[0].status == AttemptStatus.IN_PROGRESS
