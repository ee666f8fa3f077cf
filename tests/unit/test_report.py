"""
Unit tests for the result synthesizer and PDF report.
"""

import numpy as np
import pytest

from brainscan import CLASS_NAMES
from brainscan.report import HEALTHY_ADVICE, AnalysisResult, create_pdf, synthesize, to_percent


class TestSeverity:

    @pytest.mark.parametrize(
        "probs, level",
        [
            ([0.02, 0.95, 0.02, 0.01], "Large"),
            ([0.10, 0.75, 0.10, 0.05], "Medium"),
            ([0.20, 0.55, 0.15, 0.10], "Small"),
            ([0.05, 0.05, 0.0, 0.90], "Medium"),
            ([0.25, 0.05, 0.0, 0.70], "Small"),
        ],
    )
    def test_levels(self, probs, level):
        result = synthesize(probs, 0.2)
        assert result.tumor_detected is True
        assert result.tumor_level == level

    def test_no_tumor_level_is_none(self):
        result = synthesize([0.97, 0.01, 0.01, 0.01], 0.2)
        assert result.tumor_detected is False
        assert result.tumor_level == "None"
        assert result.tumor_type == "No Tumor"


class TestRecommendations:

    def test_detected_leads_with_class_and_confidence(self):
        result = synthesize([0.02, 0.95, 0.02, 0.01], 0.2)

        assert result.recommendations[0] == "Glioma detected with 95.0% confidence"
        assert len(result.recommendations) == 4

    def test_healthy_list_truncated_to_four(self):
        result = synthesize([0.9, 0.05, 0.03, 0.02], 0.2)
        assert list(result.recommendations) == HEALTHY_ADVICE[:4]


class TestSynthesize:

    def test_fields(self):
        result = synthesize([0.1, 0.2, 0.6, 0.1], 1.25, fallback_used=True)

        assert result.confidence == 60
        assert result.tumor_type == "Meningioma"
        assert result.processing_time == 1.25
        assert result.fallback_used is True
        assert result.all_predictions == (
            ("No Tumor", 10),
            ("Glioma", 20),
            ("Meningioma", 60),
            ("Pituitary Tumor", 10),
        )

    def test_percentages_round_half_up(self):
        assert to_percent(0.125) == 13
        assert to_percent(0.5) == 50
        assert to_percent(0.004) == 0

    def test_properties_over_random_vectors(self):
        rng = np.random.default_rng(11)
        for _ in range(300):
            probs = rng.dirichlet(np.ones(4))
            result = synthesize(probs, 0.1)

            assert result.tumor_detected == (int(np.argmax(probs)) != 0)
            assert [name for name, _ in result.all_predictions] == CLASS_NAMES
            assert abs(sum(pct for _, pct in result.all_predictions) - 100) <= 4
            assert 0 <= result.confidence <= 100

    def test_result_is_immutable(self):
        result = synthesize([0.9, 0.05, 0.03, 0.02], 0.2)
        with pytest.raises(AttributeError):
            result.confidence = 10

    def test_to_dict(self):
        data = synthesize([0.1, 0.2, 0.6, 0.1], 0.5).to_dict()

        assert data["tumor_detected"] is True
        assert data["all_predictions"][2] == {"class": "Meningioma", "confidence": 60}
        assert isinstance(data["recommendations"], list)


class TestCreatePdf:

    def test_renders_pdf_bytes(self):
        result = synthesize([0.1, 0.2, 0.6, 0.1], 0.5)
        pdf = create_pdf(result, file_name="scan.png", report_id=3)

        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 500

    def test_renders_fallback_result(self):
        result = AnalysisResult(
            tumor_detected=False,
            confidence=80,
            tumor_level="None",
            tumor_type="No Tumor",
            recommendations=tuple(HEALTHY_ADVICE[:4]),
            processing_time=0.1,
            fallback_used=True,
        )
        assert create_pdf(result).startswith(b"%PDF")
