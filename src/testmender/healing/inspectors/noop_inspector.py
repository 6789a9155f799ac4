"""Inspector that never reports issues."""

from ..base import SourceInspection, SourceInspector
from ...models.healing_models import MethodSnapshot, TestCase


class NoOpSourceInspector(SourceInspector):
    """Default inspector; defers every repair to regeneration."""

    async def inspect(
        self, test_case: TestCase, snapshot: MethodSnapshot
    ) -> SourceInspection:
        return SourceInspection()
