"""Services -- single-mockup jobs and bulk batches."""

from mockup_compositor.service.batch_runner import BatchRunner, run_batch
from mockup_compositor.service.single_job import SingleJobService

__all__ = ["BatchRunner", "SingleJobService", "run_batch"]
