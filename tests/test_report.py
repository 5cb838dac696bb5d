from pp_recalc.config import RecalculationResult
from pp_recalc.report import RESULT_COLUMNS, results_to_frame, summarize_by_player


def _res(beatmap_id, original, recalculated):
    return RecalculationResult(
        beatmap_id=beatmap_id,
        original_pp=original,
        recalculated_pp=recalculated,
        difference=recalculated - original,
        stars=5.0,
        mods=0,
        version=0,
    )


def test_results_to_frame_flattens_players():
    results = {
        "alpha": [_res(1, 100.0, 110.0), _res(2, 50.0, 40.0)],
        "bravo": [],
        "charlie": [_res(3, 10.0, 30.0)],
    }
    frame = results_to_frame(results)

    assert list(frame.columns) == RESULT_COLUMNS
    assert len(frame) == 3
    assert frame["player"].tolist() == ["alpha", "alpha", "charlie"]
    assert frame["beatmap_id"].tolist() == [1, 2, 3]


def test_summarize_by_player_totals_and_order():
    frame = results_to_frame(
        {
            "alpha": [_res(1, 100.0, 110.0), _res(2, 50.0, 40.0)],
            "charlie": [_res(3, 10.0, 300.0)],
        }
    )
    summary = summarize_by_player(frame)

    assert summary.index.tolist() == ["charlie", "alpha"]
    assert summary.loc["alpha", "plays"] == 2
    assert summary.loc["alpha", "recalculated_total"] == 150.0
    assert summary.loc["alpha", "mean_difference"] == 0.0


def test_summarize_empty_frame():
    summary = summarize_by_player(results_to_frame({}))
    assert summary.empty
