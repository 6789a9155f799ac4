"""Tests for the Python code analyzer."""

import pytest

from testmender.healing.base import AnalysisError
from testmender.integrations.python_code_analyzer import PythonCodeAnalyzer

CALCULATOR = '''
class Calculator:
    def foo(self, a: int, b: int = 0) -> int:
        if a < 0:
            raise ValueError("negative")
        return a + b

    @staticmethod
    def parse(text: str) -> "Calculator":
        return Calculator()

    def _reset(self, *, hard=False):
        raise NotImplementedError


def helper(value):
    return value
'''


@pytest.fixture
def analyzer():
    return PythonCodeAnalyzer(package_name="billing")


class TestPythonCodeAnalyzer:
    """Test snapshot extraction."""

    @pytest.mark.asyncio
    async def test_method_keys(self, analyzer):
        methods = await analyzer.analyze(CALCULATOR)
        assert set(methods) == {"Calculator.foo", "Calculator.parse", "Calculator._reset", ".helper"}

    @pytest.mark.asyncio
    async def test_parameters_skip_self(self, analyzer):
        foo = (await analyzer.analyze(CALCULATOR))["Calculator.foo"]

        assert foo.package_name == "billing"
        assert foo.return_type == "int"
        assert foo.parameter_types == ["int", "int"]
        assert foo.signature == "foo(int a, int b)"
        assert foo.exceptions == ["ValueError"]
        assert foo.body.startswith("def foo(self")
        assert foo.is_public

    @pytest.mark.asyncio
    async def test_static_and_keyword_only(self, analyzer):
        methods = await analyzer.analyze(CALCULATOR)

        parse = methods["Calculator.parse"]
        assert parse.is_static
        assert [p.name for p in parse.parameters] == ["text"]
        assert parse.return_type == "'Calculator'"

        reset = methods["Calculator._reset"]
        assert not reset.is_public
        assert reset.return_type == "Any"
        assert [(p.type, p.name) for p in reset.parameters] == [("Any", "hard")]
        assert reset.exceptions == ["NotImplementedError"]

    @pytest.mark.asyncio
    async def test_module_function(self, analyzer):
        helper = (await analyzer.analyze(CALCULATOR))[".helper"]

        assert helper.class_name == ""
        assert helper.qualified_name == "billing.helper"
        assert helper.parameter_types == ["Any"]

    @pytest.mark.asyncio
    async def test_find_by_signature_after_analysis(self, analyzer):
        assert await analyzer.find_by_signature("billing.Calculator.foo") is None

        await analyzer.analyze(CALCULATOR)

        snapshot = await analyzer.find_by_signature("billing.Calculator.foo")
        assert snapshot.method_name == "foo"

    @pytest.mark.asyncio
    async def test_latest_analysis_wins(self, analyzer):
        await analyzer.analyze(CALCULATOR)
        await analyzer.analyze("class Calculator:\n    def foo(self, a: int) -> int:\n        return a\n")

        snapshot = await analyzer.find_by_signature("billing.Calculator.foo")
        assert snapshot.parameter_types == ["int"]

    @pytest.mark.asyncio
    async def test_syntax_error(self, analyzer):
        with pytest.raises(AnalysisError, match="Cannot parse source"):
            await analyzer.analyze("class Broken(:\n")

    @pytest.mark.asyncio
    async def test_index_directory(self, tmp_path):
        package = tmp_path / "billing"
        package.mkdir()
        (package / "__init__.py").write_text("def version() -> str:\n    return '1'\n")
        (package / "calculator.py").write_text(CALCULATOR)
        (package / "broken.py").write_text("def oops(:\n")
        analyzer = PythonCodeAnalyzer()

        count = analyzer.index_directory(str(tmp_path))

        assert count == 5
        assert await analyzer.find_by_signature("billing.calculator.Calculator.foo") is not None
        assert await analyzer.find_by_signature("billing.version") is not None
