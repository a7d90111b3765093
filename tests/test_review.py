import asyncio
from unittest import IsolatedAsyncioTestCase

from opsync.errors import CommitError, InvalidTransitionError, SyncInProgressError
from opsync.models import (
    Classification, ClassificationKind, ClassificationResult, CommitStats, NormalizedRecord,
)
from opsync.review import ReviewCoordinator, ReviewState


def classification_with(new: int = 0, updated: int = 0, unchanged: int = 0) -> Classification:
    def results(prefix, kind, count):
        return [
            ClassificationResult(f"{prefix}-{i}", kind, NormalizedRecord(natural_key=f"{prefix}-{i}"))
            for i in range(count)
        ]
    return Classification(
        new=results("N", ClassificationKind.NEW, new),
        updated=results("U", ClassificationKind.UPDATED, updated),
        unchanged=results("S", ClassificationKind.UNCHANGED, unchanged),
    )


class StubPipeline:
    """Scripted analyze/commit coroutines for the coordinator."""

    def __init__(self, classification: Classification):
        self.classification = classification
        self.analyze_calls = 0
        self.commit_calls = 0
        self.commit_errors = []
        self.analyze_error = None
        self.gate = None

    async def analyze(self) -> Classification:
        self.analyze_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.analyze_error is not None:
            raise self.analyze_error
        return self.classification

    async def commit(self, classification: Classification) -> CommitStats:
        self.commit_calls += 1
        if self.commit_errors:
            raise self.commit_errors.pop(0)
        return CommitStats(created=len(classification.new), updated=len(classification.updated), chunks=1)


def make_coordinator(pipeline: StubPipeline) -> ReviewCoordinator:
    return ReviewCoordinator("tickets", pipeline.analyze, pipeline.commit)


class ReviewCoordinatorTests(IsolatedAsyncioTestCase):
    async def test_analyze_then_confirm(self) -> None:
        pipeline = StubPipeline(classification_with(new=1, updated=1, unchanged=3))
        coordinator = make_coordinator(pipeline)

        await coordinator.analyze()
        self.assertIs(coordinator.state, ReviewState.REVIEWING)
        self.assertTrue(coordinator.can_confirm)

        stats = await coordinator.confirm()

        self.assertIs(coordinator.state, ReviewState.DONE)
        self.assertEqual((stats.created, stats.updated), (1, 1))
        self.assertIsNone(coordinator.classification)
        self.assertEqual(coordinator.snapshot()['last_commit']['total'], 2)

    async def test_confirm_requires_review(self) -> None:
        coordinator = make_coordinator(StubPipeline(classification_with(new=1)))
        with self.assertRaises(InvalidTransitionError):
            await coordinator.confirm()

    async def test_confirm_without_changes_is_rejected(self) -> None:
        pipeline = StubPipeline(classification_with(unchanged=4))
        coordinator = make_coordinator(pipeline)
        await coordinator.analyze()

        self.assertFalse(coordinator.can_confirm)
        with self.assertRaises(InvalidTransitionError):
            await coordinator.confirm()
        self.assertEqual(pipeline.commit_calls, 0)
        self.assertIs(coordinator.state, ReviewState.REVIEWING)

    async def test_failed_commit_returns_to_review_and_retries(self) -> None:
        pipeline = StubPipeline(classification_with(new=2))
        pipeline.commit_errors = [CommitError("Database error: timeout", committed=1)]
        coordinator = make_coordinator(pipeline)
        classification = await coordinator.analyze()

        with self.assertRaises(CommitError) as ctx:
            await coordinator.confirm()

        self.assertEqual(ctx.exception.committed, 1)
        self.assertIs(coordinator.state, ReviewState.REVIEWING)
        self.assertIs(coordinator.classification, classification)
        self.assertIn("timeout", coordinator.error)

        await coordinator.confirm()
        self.assertIs(coordinator.state, ReviewState.DONE)
        self.assertIsNone(coordinator.error)
        self.assertEqual(pipeline.commit_calls, 2)

    async def test_unexpected_commit_error_is_wrapped(self) -> None:
        pipeline = StubPipeline(classification_with(new=1))
        pipeline.commit_errors = [RuntimeError("connection reset")]
        coordinator = make_coordinator(pipeline)
        await coordinator.analyze()

        with self.assertRaises(CommitError):
            await coordinator.confirm()
        self.assertIs(coordinator.state, ReviewState.REVIEWING)

    async def test_failed_analyze_returns_to_idle(self) -> None:
        pipeline = StubPipeline(classification_with(new=1))
        pipeline.analyze_error = RuntimeError("source unreachable")
        coordinator = make_coordinator(pipeline)

        with self.assertRaises(RuntimeError):
            await coordinator.analyze()

        self.assertIs(coordinator.state, ReviewState.IDLE)
        self.assertEqual(coordinator.error, "source unreachable")
        self.assertIsNone(coordinator.classification)

    async def test_cancel_discards_classification(self) -> None:
        coordinator = make_coordinator(StubPipeline(classification_with(new=1)))
        await coordinator.analyze()

        coordinator.cancel()

        self.assertIs(coordinator.state, ReviewState.IDLE)
        self.assertIsNone(coordinator.classification)

    async def test_reanalyze_replaces_classification(self) -> None:
        pipeline = StubPipeline(classification_with(new=1))
        coordinator = make_coordinator(pipeline)
        first = await coordinator.analyze()

        pipeline.classification = classification_with(updated=2)
        second = await coordinator.analyze()

        self.assertIsNot(first, second)
        self.assertIs(coordinator.classification, second)
        self.assertEqual(len(coordinator.classification.updated), 2)

    async def test_analyze_allowed_after_done(self) -> None:
        pipeline = StubPipeline(classification_with(new=1))
        coordinator = make_coordinator(pipeline)
        await coordinator.analyze()
        await coordinator.confirm()

        await coordinator.analyze()
        self.assertIs(coordinator.state, ReviewState.REVIEWING)

    async def test_concurrent_analyze_is_rejected(self) -> None:
        pipeline = StubPipeline(classification_with(new=1))
        pipeline.gate = asyncio.Event()
        coordinator = make_coordinator(pipeline)

        first = asyncio.create_task(coordinator.analyze())
        await asyncio.sleep(0)
        self.assertIs(coordinator.state, ReviewState.ANALYZING)

        with self.assertRaises(SyncInProgressError):
            await coordinator.analyze()

        pipeline.gate.set()
        await first
        self.assertEqual(pipeline.analyze_calls, 1)

    async def test_shared_lock_blocks_review(self) -> None:
        lock = asyncio.Lock()
        pipeline = StubPipeline(classification_with(new=1))
        coordinator = ReviewCoordinator("tickets", pipeline.analyze, pipeline.commit, lock=lock)

        async with lock:
            with self.assertRaises(SyncInProgressError):
                await coordinator.analyze()
        self.assertEqual(pipeline.analyze_calls, 0)

    async def test_cancel_during_analyze_discards_result(self) -> None:
        pipeline = StubPipeline(classification_with(new=1))
        pipeline.gate = asyncio.Event()
        coordinator = make_coordinator(pipeline)

        task = asyncio.create_task(coordinator.analyze())
        await asyncio.sleep(0)
        coordinator.cancel()
        pipeline.gate.set()

        self.assertIsNone(await task)
        self.assertIs(coordinator.state, ReviewState.IDLE)
        self.assertIsNone(coordinator.classification)

    async def test_snapshot_includes_records_on_request(self) -> None:
        coordinator = make_coordinator(StubPipeline(classification_with(new=1, unchanged=1)))
        await coordinator.analyze()

        snapshot = coordinator.snapshot(include_records=True)

        self.assertEqual(snapshot['state'], "reviewing")
        self.assertEqual(snapshot['summary']['new'], 1)
        self.assertEqual(snapshot['classification']['new'][0]['natural_key'], "N-0")
        self.assertNotIn('classification', coordinator.snapshot())
