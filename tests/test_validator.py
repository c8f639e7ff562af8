"""Tests for landmark validation and feature extraction."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from facewarp.errors import FeatureNotDetected, IncompleteLandmarks, LowConfidence, NoFaceDetected
from facewarp.keypoints import FEATURE_LANDMARKS, FEATURE_ORDER, JAWLINE, LEFT_EYE, RIGHT_EYE
from facewarp.types import DetectionResult, Face
from facewarp.validator import extract_feature, validate_detection


class TestIndexContract:
    def test_left_eye_indices(self) -> None:
        assert LEFT_EYE == [33, 7, 163, 144, 145, 153, 154, 155, 133]

    def test_right_eye_indices(self) -> None:
        assert RIGHT_EYE == [263, 249, 390, 373, 374, 380, 381, 382, 362]

    def test_jawline_indices(self) -> None:
        assert JAWLINE == list(range(17))

    def test_feature_order_eyes_before_jaw(self) -> None:
        assert FEATURE_ORDER == ("leftEye", "rightEye", "jawline")
        assert set(FEATURE_LANDMARKS) == set(FEATURE_ORDER)


class TestValidateDetection:
    def test_no_faces(self) -> None:
        with pytest.raises(NoFaceDetected):
            validate_detection(DetectionResult(faces=[]))

    def test_accepts_valid_face(self, detection) -> None:
        validated = validate_detection(detection)
        assert set(validated.features) == {"leftEye", "rightEye", "jawline"}
        assert len(validated.feature("leftEye")) == 9
        assert len(validated.feature("jawline")) == 17
        assert validated.warnings == []

    def test_multiple_faces_uses_first_with_warning(self, make_detection, caplog) -> None:
        result = make_detection(faces=2)
        second = result.faces[1]
        second.confidence = 0.1
        with caplog.at_level(logging.WARNING, logger="facewarp.validator"):
            validated = validate_detection(result)
        assert validated.face is result.faces[0]
        assert len(validated.warnings) == 1
        assert "Multiple faces" in caplog.text

    def test_confidence_just_below_threshold(self, make_detection) -> None:
        with pytest.raises(LowConfidence) as exc:
            validate_detection(make_detection(confidence=0.69))
        assert exc.value.confidence == 0.69
        assert exc.value.threshold == 0.7

    def test_confidence_at_threshold_is_accepted(self, make_detection) -> None:
        validate_detection(make_detection(confidence=0.70))

    def test_missing_confidence(self, make_detection) -> None:
        result = make_detection()
        result.faces[0].confidence = None
        with pytest.raises(LowConfidence):
            validate_detection(result)

    def test_confidence_threshold_from_config(self, make_detection) -> None:
        cfg = {"validation": {"min_confidence": 0.9}}
        with pytest.raises(LowConfidence):
            validate_detection(make_detection(confidence=0.85), cfg=cfg)

    def test_467_landmarks_incomplete(self, make_detection) -> None:
        with pytest.raises(IncompleteLandmarks) as exc:
            validate_detection(make_detection(n=467))
        assert exc.value.count == 467
        assert exc.value.required == 468

    def test_468_landmarks_accepted(self, make_detection) -> None:
        validate_detection(make_detection(n=468))

    @pytest.mark.parametrize("landmarks", [None, "not a mesh", {"0": (1.0, 2.0)}, 42])
    def test_landmarks_not_a_sequence(self, landmarks) -> None:
        result = DetectionResult(faces=[Face(confidence=0.9, landmarks=landmarks)])
        with pytest.raises(IncompleteLandmarks) as exc:
            validate_detection(result)
        assert exc.value.count is None

    def test_list_of_tuples_accepted(self, detection) -> None:
        mesh = [tuple(p) for p in detection.faces[0].landmarks.tolist()]
        result = DetectionResult(faces=[Face(confidence=0.9, landmarks=mesh)])
        validated = validate_detection(result)
        assert validated.feature("leftEye").points[0] == (55.0, 75.0)

    def test_confidence_checked_before_landmarks(self) -> None:
        result = DetectionResult(faces=[Face(confidence=0.2, landmarks=None)])
        with pytest.raises(LowConfidence):
            validate_detection(result)

    def test_all_eye_points_invalid(self, detection) -> None:
        mesh = detection.faces[0].landmarks
        mesh[LEFT_EYE, 0] = -1.0
        with pytest.raises(FeatureNotDetected) as exc:
            validate_detection(detection)
        assert exc.value.name == "leftEye"


class TestExtractFeature:
    def test_drops_invalid_points_and_logs(self, caplog) -> None:
        mesh = [(float(i), float(i)) for i in range(468)]
        mesh[33] = (float("nan"), 5.0)
        mesh[7] = (-1.0, 4.0)
        mesh[163] = (3.0,)
        mesh[144] = None
        with caplog.at_level(logging.WARNING, logger="facewarp.validator"):
            feature = extract_feature(mesh, LEFT_EYE, "leftEye")
        assert len(feature) == 5
        assert feature.points[0] == (145.0, 145.0)
        assert "dropped 4 of 9" in caplog.text
        assert "[33, 7, 163, 144]" in caplog.text

    def test_preserves_index_order(self) -> None:
        mesh = [(float(i), 0.0) for i in range(468)]
        feature = extract_feature(mesh, [5, 2, 9], "jawline")
        assert [p[0] for p in feature.points] == [5.0, 2.0, 9.0]

    def test_extra_coordinates_stripped(self) -> None:
        mesh = np.array([[1.0, 2.0, -30.0]] * 468)
        feature = extract_feature(mesh, [0], "jawline")
        assert feature.points == [(1.0, 2.0)]

    def test_non_numeric_coordinates_dropped(self) -> None:
        mesh = [("a", "b")] * 468
        with pytest.raises(FeatureNotDetected):
            extract_feature(mesh, [0, 1], "jawline")

    def test_out_of_range_index_dropped(self) -> None:
        mesh = [(1.0, 1.0)] * 468
        feature = extract_feature(mesh, [0, 500], "jawline")
        assert len(feature) == 1
