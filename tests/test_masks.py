"""Tests for mask artifact addressing and frame mask normalization."""

from __future__ import annotations

import json

import pytest

from segmentation_sdk import (
    MaskArtifact,
    MaskArtifactContext,
    ValidationError,
    build_frames_key,
    build_mask_artifact_key,
    build_mask_artifact_url,
    decode_coco_rle_mask,
    normalize_mask_artifacts,
    normalize_video_frame_masks,
)
from segmentation_sdk.config.settings import DEFAULT_ASSETS_BASE_URL

CONTEXT = MaskArtifactContext(user_id="user-a", job_id="job-1", task_id="task-9")
ASSET_PREFIX = "https://assets.segmentationapi.com/outputs/user-a/job-1/task-9"


def _mask(index: int, score: float | None = None, box: tuple | None = None, url: str | None = None) -> MaskArtifact:
    key = f"outputs/user-a/job-1/task-9/mask_{index}.png"
    return MaskArtifact(
        mask_index=index,
        key=key,
        url=url or f"{ASSET_PREFIX}/mask_{index}.png",
        score=score,
        box=box,
    )


def test_build_mask_artifact_key_trims_segments() -> None:
    context = MaskArtifactContext(user_id="/user-a/", job_id=" job-1 ", task_id="/task-9")

    assert build_mask_artifact_key(context, 2) == "outputs/user-a/job-1/task-9/mask_2.png"


def test_build_mask_artifact_url_is_idempotent_under_trimming() -> None:
    expected = f"{ASSET_PREFIX}/mask_2.png"

    assert build_mask_artifact_url("/outputs/user-a/job-1/task-9/mask_2.png") == expected
    assert build_mask_artifact_url("///outputs/user-a/job-1/task-9/mask_2.png") == expected
    assert build_mask_artifact_url("outputs/user-a/job-1/task-9/mask_2.png", "https://cdn.example.com/") == (
        "https://cdn.example.com/outputs/user-a/job-1/task-9/mask_2.png"
    )


def test_asset_urls_default_to_configured_assets_host() -> None:
    assert build_mask_artifact_url("outputs/a/mask_0.png") == f"{DEFAULT_ASSETS_BASE_URL}/outputs/a/mask_0.png"


def test_build_frames_key() -> None:
    assert build_frames_key(CONTEXT) == "outputs/user-a/job-1/task-9/frames.ndjson.gz"


def test_normalize_mask_artifacts_sorts_and_resolves_spellings() -> None:
    normalized = normalize_mask_artifacts(
        {
            "masks": [
                {"maskIndex": 3, "score": 0.7, "box": [1, 2, 3, 4]},
                {"mask_index": 1, "confidence": 0.9, "box": [5, 6, 7, 8]},
            ]
        },
        CONTEXT,
    )

    assert normalized == [
        _mask(1, score=0.9, box=(5, 6, 7, 8)),
        _mask(3, score=0.7, box=(1, 2, 3, 4)),
    ]


def test_normalize_mask_artifacts_prefers_explicit_key_and_drops_unaddressable() -> None:
    normalized = normalize_mask_artifacts(
        [
            {"maskIndex": 0, "storageKey": "/custom/mask.png", "box": None},
            {"maskIndex": 1},
        ]
    )

    assert [(mask.mask_index, mask.key) for mask in normalized] == [(0, "/custom/mask.png")]
    assert normalized[0].url == "https://assets.segmentationapi.com/custom/mask.png"


def test_normalize_mask_artifacts_falls_back_to_position() -> None:
    normalized = normalize_mask_artifacts({"masks": [{"maskIndex": "abc"}, {"maskIndex": "4"}]}, CONTEXT)

    assert [mask.mask_index for mask in normalized] == [0, 4]


@pytest.mark.parametrize("payload", [{"notMasks": []}, {"masks": "nope"}, None, "text"])
def test_normalize_mask_artifacts_without_mask_array(payload: object) -> None:
    assert normalize_mask_artifacts(payload, CONTEXT) == []


@pytest.mark.parametrize(
    "entry, path",
    [
        ({"box": [1, 2, 3]}, "masks.0.box"),
        ({"box": "bad"}, "masks.0.box"),
        ({"score": "high"}, "masks.0.score"),
    ],
)
def test_normalize_mask_artifacts_rejects_malformed_values(entry: dict, path: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        normalize_mask_artifacts([entry], CONTEXT, operation="segment")

    assert exc_info.value.direction == "response"
    assert exc_info.value.operation == "segment"
    assert exc_info.value.issues[0].path == path


FRAME_ROWS = [
    {
        "frameIdx": 0,
        "objects": [
            {"objectId": 2, "confidence": 0.8, "box": [5, 6, 7, 8]},
            {"objectId": 1, "score": 0.91, "box": [1, 2, 3, 4]},
        ],
    },
    {"frame_idx": 1, "objects": [{"object_id": 1, "score": 0.7}]},
]

EXPECTED_FRAMES = {
    0: [_mask(1, score=0.91, box=(1, 2, 3, 4)), _mask(2, score=0.8, box=(5, 6, 7, 8))],
    1: [_mask(1, score=0.7)],
}


@pytest.mark.parametrize(
    "payload",
    [
        FRAME_ROWS,
        "\n".join(json.dumps(row) for row in FRAME_ROWS),
        {"frames": FRAME_ROWS},
    ],
    ids=["rows", "ndjson", "wrapped"],
)
def test_normalize_video_frame_masks_accepts_every_shape(payload: object) -> None:
    assert normalize_video_frame_masks(payload, CONTEXT) == EXPECTED_FRAMES


def test_normalize_video_frame_masks_keeps_mask_url_and_rle() -> None:
    rle = {"size": [2, 2], "counts": [1, 2, 1]}
    normalized = normalize_video_frame_masks(
        {"frames": [{"frameIdx": 4, "objects": [{"objectId": 7, "maskUrl": "https://cdn.example.com/m7.png", "rle": rle}]}]},
        CONTEXT,
    )

    [mask] = normalized[4]
    assert mask.url == "https://cdn.example.com/m7.png"
    assert mask.key == "outputs/user-a/job-1/task-9/mask_7.png"
    assert mask.rle == rle
    assert mask.score is None
    assert mask.box is None


def test_normalize_video_frame_masks_skips_bad_rows() -> None:
    ndjson = "\n".join(
        [
            "not json",
            json.dumps({"frameIdx": -1, "objects": [{"objectId": 1}]}),
            json.dumps({"frameIdx": 2, "objects": []}),
            json.dumps({"frameIdx": 3, "objects": [{"objectId": 5}]}),
            "",
        ]
    )

    assert list(normalize_video_frame_masks(ndjson, CONTEXT)) == [3]


@pytest.mark.parametrize("payload", [{"masks": [{"maskIndex": 2, "score": 0.5}]}, None, 42])
def test_normalize_video_frame_masks_unknown_shape(payload: object) -> None:
    assert normalize_video_frame_masks(payload, CONTEXT) == {}


def test_decode_coco_rle_mask_from_counts() -> None:
    decoded = decode_coco_rle_mask({"size": [2, 2], "counts": [1, 2, 1]})

    assert (decoded.width, decoded.height) == (2, 2)
    assert list(decoded.data) == [0, 1, 1, 0]


def test_decode_coco_rle_mask_is_row_major() -> None:
    # 2 rows x 3 columns; columns read top to bottom are (0, 1), (1, 0), (0, 0)
    decoded = decode_coco_rle_mask({"size": [2, 3], "counts": [1, 2, 3]})

    assert (decoded.width, decoded.height) == (3, 2)
    assert list(decoded.data) == [0, 1, 0, 1, 0, 0]


def test_decode_coco_rle_mask_from_compressed_string() -> None:
    # runs: 0 off, 2 on, 2 off; deltas only apply from the fourth run on
    decoded = decode_coco_rle_mask({"size": [2, 2], "counts": "022"})

    assert list(decoded.data) == [1, 0, 1, 0]


@pytest.mark.parametrize(
    "rle",
    [
        {"size": [2], "counts": [4]},
        {"size": [2, 2], "counts": [1, 1]},
        {"size": [2, 2], "counts": None},
    ],
)
def test_decode_coco_rle_mask_rejects_malformed(rle: dict) -> None:
    with pytest.raises(ValueError):
        decode_coco_rle_mask(rle)
