import httpx
import pytest

from pp_recalc.artifact_store import ArtifactStore
from pp_recalc.config import BeatmapRef, LeaderboardEntry, PlayRecord
from pp_recalc.engines import EngineRegistry, RulesetEngine
from pp_recalc.errors import (
    ArtifactUnparseable,
    InvalidParameter,
    UpstreamMalformed,
    UpstreamUnavailable,
)
from pp_recalc.pipeline import parse_variant, run_recalculation
from pp_recalc.pipeline_types import Branch, CalculationVariant, EngineOutput, Ruleset

BEATMAP_BYTES = b"osu file format v14\n\n[HitObjects]\n256,192,1000,1,0,0:0:0:0:\n"


def _play(beatmap_id: int, pp: float = 200.0) -> PlayRecord:
    return PlayRecord(
        pp=pp, acc=97.0, max_combo=800, mods=0,
        n300=600, n100=12, n50=0, nmiss=2,
        beatmap=BeatmapRef(id=beatmap_id, md5="m"),
    )


class FakeRankingClient:
    def __init__(self, leaderboard, scores, failing=(), leaderboard_error=None):
        self.leaderboard = leaderboard
        self.scores = scores
        self.failing = set(failing)
        self.leaderboard_error = leaderboard_error
        self.leaderboard_calls = 0

    def fetch_leaderboard(self, mode):
        self.leaderboard_calls += 1
        if self.leaderboard_error is not None:
            raise self.leaderboard_error
        return self.leaderboard

    def fetch_player_scores(self, player_id, mode):
        if player_id in self.failing:
            raise UpstreamUnavailable("player fetch failed")
        return self.scores.get(player_id, [])


class FixedEngine:
    def __init__(self, pp=250.0, stars=5.5):
        self.pp = pp
        self.stars = stars
        self.paths = []

    def load_beatmap(self, path):
        self.paths.append(path)
        return path

    def calculate(self, beatmap, ruleset, params):
        return EngineOutput(pp=self.pp, stars=self.stars)


def make_store(tmp_path, status=200, body=BEATMAP_BYTES):
    downloads = []

    def handler(request):
        downloads.append(request.url.path)
        return httpx.Response(status, content=body)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ArtifactStore(tmp_path, "https://origin.test/osu", http_client=client), downloads


def registry_with(engine):
    return EngineRegistry({"main": engine, "legit": engine, "live": engine})


VARIANT = CalculationVariant(Ruleset.STANDARD, Branch.NO_CHEATS)


def test_failed_player_fetch_yields_empty_list_not_failure(tmp_path):
    client = FakeRankingClient(
        leaderboard=[
            LeaderboardEntry(player_id=1, name="A", pp=9000.0),
            LeaderboardEntry(player_id=2, name="B", pp=8000.0),
        ],
        scores={1: [_play(100)]},
        failing={2},
    )
    store, _ = make_store(tmp_path)

    results = run_recalculation(0, VARIANT, client, store, registry_with(FixedEngine()))

    assert set(results) == {"A", "B"}
    assert len(results["A"]) == 1
    assert results["B"] == []
    assert results["A"][0].beatmap_id == 100
    assert results["A"][0].difference == 50.0


def test_per_player_order_follows_upstream(tmp_path):
    client = FakeRankingClient(
        leaderboard=[LeaderboardEntry(player_id=1, name="A", pp=1.0)],
        scores={1: [_play(30), _play(10), _play(20)]},
    )
    store, _ = make_store(tmp_path)
    results = run_recalculation(0, VARIANT, client, store, registry_with(FixedEngine()))
    assert [r.beatmap_id for r in results["A"]] == [30, 10, 20]


def test_beatmaps_are_downloaded_once_and_passed_by_path(tmp_path):
    client = FakeRankingClient(
        leaderboard=[
            LeaderboardEntry(player_id=1, name="A", pp=1.0),
            LeaderboardEntry(player_id=2, name="B", pp=1.0),
        ],
        scores={1: [_play(55)], 2: [_play(55)]},
    )
    store, downloads = make_store(tmp_path)
    engine = FixedEngine()

    run_recalculation(0, VARIANT, client, store, registry_with(engine))

    assert downloads == ["/osu/55"]
    assert engine.paths == [tmp_path / "55.osu", tmp_path / "55.osu"]


def test_invalid_mode_fails_before_any_work(tmp_path):
    client = FakeRankingClient(leaderboard=[], scores={})
    store, downloads = make_store(tmp_path)
    with pytest.raises(InvalidParameter):
        run_recalculation(9, VARIANT, client, store, registry_with(FixedEngine()))
    assert client.leaderboard_calls == 0
    assert downloads == []


def test_leaderboard_failure_is_fatal(tmp_path):
    client = FakeRankingClient(leaderboard=[], scores={}, leaderboard_error=UpstreamUnavailable("down"))
    store, _ = make_store(tmp_path)
    with pytest.raises(UpstreamUnavailable):
        run_recalculation(0, VARIANT, client, store, registry_with(FixedEngine()))


def test_artifact_failure_is_fatal(tmp_path):
    client = FakeRankingClient(
        leaderboard=[LeaderboardEntry(player_id=1, name="A", pp=1.0)],
        scores={1: [_play(77)]},
    )
    store, _ = make_store(tmp_path, status=503)
    with pytest.raises(UpstreamUnavailable):
        run_recalculation(0, VARIANT, client, store, registry_with(FixedEngine()))


def test_unparseable_beatmap_aborts_run(tmp_path):
    class Unparseable(FixedEngine):
        def load_beatmap(self, path):
            raise ArtifactUnparseable("garbage")

    client = FakeRankingClient(
        leaderboard=[LeaderboardEntry(player_id=1, name="A", pp=1.0)],
        scores={1: [_play(1), _play(2)]},
    )
    store, _ = make_store(tmp_path)
    with pytest.raises(ArtifactUnparseable):
        run_recalculation(0, VARIANT, client, store, registry_with(Unparseable()))


def test_empty_leaderboard_gives_empty_map(tmp_path):
    client = FakeRankingClient(leaderboard=[], scores={})
    store, _ = make_store(tmp_path)
    assert run_recalculation(0, VARIANT, client, store, registry_with(FixedEngine())) == {}


def test_parse_variant_validates_ranges():
    assert parse_variant(2, 3, True) == CalculationVariant(Ruleset.SCOREV2, Branch.LEGIT, True)
    with pytest.raises(InvalidParameter):
        parse_variant(3, 0)
    with pytest.raises(InvalidParameter):
        parse_variant(0, -1)


def test_error_page_from_origin_aborts_run_before_scoring(tmp_path):
    client = FakeRankingClient(
        leaderboard=[LeaderboardEntry(player_id=1, name="A", pp=1.0)],
        scores={1: [_play(12)]},
    )
    store, _ = make_store(tmp_path, body=b"<html><body>rate limited</body></html>")
    engine = FixedEngine()
    with pytest.raises(UpstreamMalformed):
        run_recalculation(0, VARIANT, client, store, registry_with(engine))
    assert engine.paths == []
    assert not (tmp_path / "12.osu").exists()


def test_version_changes_recalculated_pp_with_default_engine(tmp_path, beatmap_bytes):
    client = FakeRankingClient(
        leaderboard=[LeaderboardEntry(player_id=1, name="A", pp=1.0)],
        scores={
            1: [
                PlayRecord(
                    pp=150.0, acc=97.56, max_combo=200, mods=0,
                    n300=290, n100=8, n50=0, nmiss=2,
                    beatmap=BeatmapRef(id=4242, md5="m"),
                )
            ]
        },
    )
    store, _ = make_store(tmp_path, body=beatmap_bytes)
    engines = registry_with(RulesetEngine())

    pp_by_version = {}
    for version in range(3):
        variant = CalculationVariant(Ruleset(version), Branch.NO_CHEATS)
        (result,) = run_recalculation(0, variant, client, store, engines)["A"]
        assert result.version == version
        pp_by_version[version] = result.recalculated_pp

    assert len(set(pp_by_version.values())) == 3, pp_by_version
