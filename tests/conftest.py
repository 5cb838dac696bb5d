import pytest


def build_beatmap(circles: int = 300, step_ms: int = 150) -> bytes:
    """A minimal but complete osu!standard map: alternating jumps across the playfield."""
    lines = [
        "osu file format v14",
        "",
        "[General]",
        "AudioFilename: audio.mp3",
        "Mode: 0",
        "",
        "[Metadata]",
        "Title:synthetic",
        "Artist:tests",
        "Version:jumps",
        "",
        "[Difficulty]",
        "HPDrainRate:5",
        "CircleSize:4",
        "OverallDifficulty:8",
        "ApproachRate:9",
        "SliderMultiplier:1.4",
        "SliderTickRate:1",
        "",
        "[TimingPoints]",
        "0,300,4,2,0,100,1,0",
        "",
        "[HitObjects]",
    ]
    for i in range(circles):
        x = 64 if i % 2 == 0 else 448
        y = 96 + (i % 3) * 96
        lines.append(f"{x},{y},{1000 + i * step_ms},1,0,0:0:0:0:")
    return ("\n".join(lines) + "\n").encode()


@pytest.fixture
def beatmap_bytes() -> bytes:
    return build_beatmap()


@pytest.fixture
def beatmap_file(tmp_path, beatmap_bytes):
    path = tmp_path / "4242.osu"
    path.write_bytes(beatmap_bytes)
    return path
