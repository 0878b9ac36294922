import pytest

import lazy
import pull
from lazy import LazyPipeline, PipelineError


BACKENDS = ["generator", "pull"]
STAGE_MODULES = [lazy, pull]


def times_ten(n):
    return n * 10


def divisible_by_three(n):
    return n % 3 == 0


class TestDirectComposition:
    """Stages nest the same way in both implementations"""

    @pytest.mark.parametrize("stages", STAGE_MODULES)
    @pytest.mark.parametrize("stop", [20, 10000])
    def test_first_two_multiples(self, stages, stop):
        flow = stages.take(stages.select(stages.transform(stages.sequence(0, stop), times_ten),
                                         divisible_by_three), 2)
        assert stages.join(flow) == [0, 30]

    @pytest.mark.parametrize("stages", STAGE_MODULES)
    def test_source_pulls_are_minimal(self, stages, call_log):
        source = stages.transform(stages.sequence(0, 10000), call_log(lambda n: n))
        flow = stages.take(stages.select(stages.transform(source, times_ten), divisible_by_three), 2)
        assert stages.join(flow) == [0, 30]
        assert call_log.seen == [0, 1, 2, 3], f"Unexpected source pulls: {call_log.seen}"

    @pytest.mark.parametrize("stages", STAGE_MODULES)
    def test_take_of_take(self, stages):
        flow = stages.take(stages.take(stages.sequence(0, 100), 5), 3)
        assert stages.join(flow) == [0, 1, 2]

    @pytest.mark.parametrize("stages", STAGE_MODULES)
    def test_limit_until_after_select(self, stages):
        flow = stages.limit_until(stages.select(stages.sequence(0, 100), lambda n: n % 4 == 0),
                                  lambda n: n >= 12)
        assert stages.join(flow) == [0, 4, 8, 12]

    def test_backends_agree(self):
        def build(stages):
            flow = stages.sequence(-5, 40)
            flow = stages.transform(flow, lambda n: n * n)
            flow = stages.select(flow, lambda n: n % 2 == 1)
            flow = stages.limit_until(flow, lambda n: n > 300)
            return stages.join(flow)

        assert build(lazy) == build(pull)


class TestPipelineBuilder:
    """Fluent builder over either backend"""

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_builder_matches_direct_composition(self, backend):
        built = list(
            lazy.lazy(backend)
            .source(0, 100)
            .transform(times_ten)
            .select(divisible_by_three)
            .take(2)
        )
        direct = pull.join(pull.take(pull.select(pull.transform(pull.sequence(0, 100), times_ten),
                                                 divisible_by_three), 2))
        assert built == direct == [0, 30]

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_for_loop_consumption(self, backend):
        nums = lazy.lazy(backend).range(0, 100).map(times_ten).filter(divisible_by_three).take(2)
        seen = []
        for n in nums:
            seen.append(n)
        assert seen == [0, 30]

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_to_list(self, backend):
        result = LazyPipeline(backend).source(1, 6).transform(lambda n: n * n).to_list()
        assert result == [1, 4, 9, 16, 25]

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_chaining_returns_same_builder(self, backend):
        pipeline = LazyPipeline(backend)
        assert pipeline.source(0, 3) is pipeline
        assert pipeline.transform(lambda n: n) is pipeline
        assert pipeline.take(1) is pipeline

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_builder_is_lazy(self, backend, call_log):
        pipeline = LazyPipeline(backend).source(0, 1000).transform(call_log(lambda n: n)).take(3)
        assert call_log.seen == []
        assert pipeline.to_list() == [0, 1, 2]
        assert call_log.seen == [0, 1, 2]

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_single_use(self, backend):
        pipeline = LazyPipeline(backend).source(0, 3)
        assert list(pipeline) == [0, 1, 2]
        assert list(pipeline) == [], "A consumed pipeline should stay exhausted"

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_from_iterable(self, backend):
        result = LazyPipeline(backend).from_iterable("abcdef").select(lambda c: c in "ace").to_list()
        assert result == ["a", "c", "e"]

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_limit_until(self, backend):
        result = LazyPipeline(backend).source(0, 50).limit_until(lambda n: n == 4).to_list()
        assert result == [0, 1, 2, 3, 4]

    def test_stage_before_source_raises(self):
        with pytest.raises(PipelineError, match="no source"):
            LazyPipeline().transform(times_ten)

    def test_iterate_before_source_raises(self):
        with pytest.raises(PipelineError):
            iter(LazyPipeline("pull"))

    def test_unknown_backend(self):
        with pytest.raises(PipelineError, match="Unknown backend"):
            LazyPipeline("threads")

    def test_pipeline_error_is_value_error(self):
        assert issubclass(PipelineError, ValueError)

    def test_accepts_backend_enum(self):
        from models import Backend
        assert LazyPipeline(Backend.PULL).backend == "pull"

    def test_repr(self):
        pipeline = LazyPipeline("pull")
        assert repr(pipeline) == "LazyPipeline(backend='pull', unsourced)"
        pipeline.source(0, 1)
        assert repr(pipeline) == "LazyPipeline(backend='pull', sourced)"
