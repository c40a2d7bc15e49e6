"""Upload batch repositories."""


from app.domain.upload import UploadBatch, UploadRowOutcome
from app.repositories.base import BaseRepository


class UploadBatchRepository(BaseRepository[UploadBatch]):
    model = UploadBatch


class UploadRowOutcomeRepository(BaseRepository[UploadRowOutcome]):
    model = UploadRowOutcome
