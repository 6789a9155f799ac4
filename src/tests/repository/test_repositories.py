"""Tests for test case repositories."""

import pytest

from testmender.models.healing_models import TestStatus
from testmender.repository.stores import (
    InMemoryTestCaseRepository,
    JsonFileTestCaseRepository,
)


class TestInMemoryTestCaseRepository:
    """Test InMemoryTestCaseRepository."""

    @pytest.mark.asyncio
    async def test_save_and_find(self, repository, make_test_case):
        test_case = make_test_case()
        before = test_case.modified_at

        saved = await repository.save(test_case)
        found = await repository.find_by_id(test_case.id)

        assert saved is test_case
        assert saved.modified_at >= before
        assert found.name == "test_foo"
        assert found is not test_case

    @pytest.mark.asyncio
    async def test_unknown_id(self, repository):
        assert await repository.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_returned_objects_are_detached(self, repository, make_test_case):
        test_case = await repository.save(make_test_case())

        found = await repository.find_by_id(test_case.id)
        found.status = TestStatus.PASSED

        assert (await repository.find_by_id(test_case.id)).status == TestStatus.BROKEN

    @pytest.mark.asyncio
    async def test_find_by_status(self, repository, make_test_case):
        await repository.save(make_test_case(status=TestStatus.BROKEN))
        await repository.save(make_test_case(status=TestStatus.PASSED))
        await repository.save(make_test_case(status=TestStatus.BROKEN))

        broken = await repository.find_by_status(TestStatus.BROKEN)

        assert len(broken) == 2
        assert all(tc.status == TestStatus.BROKEN for tc in broken)

    @pytest.mark.asyncio
    async def test_find_by_class_name_matches_test_or_target(self, repository, make_test_case):
        await repository.save(make_test_case(class_name="TestCalculator", target_class="Calculator"))
        await repository.save(make_test_case(class_name="TestLedger", target_class="Ledger"))

        assert len(await repository.find_by_class_name("Calculator")) == 1
        assert len(await repository.find_by_class_name("TestLedger")) == 1
        assert await repository.find_by_class_name("Unknown") == []

    @pytest.mark.asyncio
    async def test_delete(self, repository, make_test_case):
        test_case = await repository.save(make_test_case())

        assert await repository.delete(test_case.id) is True
        assert await repository.delete(test_case.id) is False
        assert await repository.find_all() == []

    @pytest.mark.asyncio
    async def test_seeded_constructor(self, make_test_case):
        repository = InMemoryTestCaseRepository([make_test_case(), make_test_case()])
        assert len(await repository.find_all()) == 2


class TestJsonFileTestCaseRepository:
    """Test JsonFileTestCaseRepository persistence."""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path, make_test_case):
        repository = JsonFileTestCaseRepository(str(tmp_path))
        test_case = await repository.save(make_test_case())

        reloaded = JsonFileTestCaseRepository(str(tmp_path))
        found = await reloaded.find_by_id(test_case.id)

        assert found.name == "test_foo"
        assert found.target_qualified_name == "billing.Calculator.foo"
        assert (tmp_path / f"{test_case.id}.json").exists()

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, tmp_path, make_test_case):
        repository = JsonFileTestCaseRepository(str(tmp_path))
        test_case = await repository.save(make_test_case())

        assert await repository.delete(test_case.id) is True
        assert not (tmp_path / f"{test_case.id}.json").exists()

    def test_skips_invalid_files(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

        repository = JsonFileTestCaseRepository(str(tmp_path))

        assert repository._test_cases == {}

    def test_creates_storage_dir(self, tmp_path):
        storage = tmp_path / "nested" / "tests"
        JsonFileTestCaseRepository(str(storage))
        assert storage.is_dir()
