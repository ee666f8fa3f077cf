import io
import math
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from brainscan import CLASS_NAMES

LARGE_THRESHOLD = 0.9
MEDIUM_THRESHOLD = 0.7
MAX_RECOMMENDATIONS = 4

DETECTED_ADVICE = [
    "Immediate consultation with a neurosurgeon is recommended",
    "Additional contrast MRI scan may be beneficial for detailed assessment",
    "Consider molecular testing for precise treatment planning",
    "Regular monitoring with follow-up scans every 3 months",
]

HEALTHY_ADVICE = [
    "No tumor detected in the scan",
    "Continue with routine health monitoring",
    "Maintain healthy lifestyle practices",
    "Follow up with your physician as scheduled",
    "Report any new symptoms immediately",
]

AI_SUMMARY = {
    "Glioma": "Glioma detected. This tumor originates from glial cells and may require further MRI and biopsy for grading.",
    "Meningioma": "Meningioma detected. Often slow-growing and usually benign, but clinical evaluation is recommended.",
    "Pituitary Tumor": "Pituitary tumor detected. Hormonal evaluation and endocrinology consultation are advised.",
    "No Tumor": "No tumor detected. MRI appears normal, but clinical correlation is recommended.",
}

FALLBACK_NOTICE = (
    "The trained model is unavailable; this result comes from a rule-based "
    "heuristic and is for demonstration only."
)


def to_percent(probability):
    """Round half up to a whole percentage."""
    return int(math.floor(float(probability) * 100 + 0.5))


def tumor_level_for(detected, confidence):
    if not detected:
        return "None"
    if confidence > LARGE_THRESHOLD:
        return "Large"
    if confidence > MEDIUM_THRESHOLD:
        return "Medium"
    return "Small"


@dataclass(frozen=True)
class AnalysisResult:
    tumor_detected: bool
    confidence: int
    tumor_level: str
    tumor_type: str
    recommendations: tuple
    processing_time: float
    all_predictions: tuple = field(default_factory=tuple)
    fallback_used: bool = False

    def to_dict(self):
        return {
            "tumor_detected": self.tumor_detected,
            "confidence": self.confidence,
            "tumor_level": self.tumor_level,
            "tumor_type": self.tumor_type,
            "recommendations": list(self.recommendations),
            "processing_time": self.processing_time,
            "all_predictions": [
                {"class": name, "confidence": pct} for name, pct in self.all_predictions
            ],
            "fallback_used": self.fallback_used,
        }

    @classmethod
    def from_record(cls, record):
        """Rebuild a result from a stored scan_history row."""
        return cls(
            tumor_detected=record.tumor_detected,
            confidence=record.confidence,
            tumor_level=record.tumor_level,
            tumor_type=record.tumor_type,
            recommendations=tuple(record.recommendations or ()),
            processing_time=record.processing_time,
            all_predictions=tuple(
                (p["class"], p["confidence"]) for p in (record.all_predictions or ())
            ),
            fallback_used=bool(record.fallback_used),
        )


def synthesize(probabilities, processing_time, fallback_used=False):
    """Turn 4 class probabilities into the user-facing report."""
    probs = np.asarray(probabilities, dtype=np.float64)
    class_index = int(np.argmax(probs))
    max_confidence = float(probs[class_index])
    tumor_type = CLASS_NAMES[class_index]

    detected = class_index != 0

    if detected:
        recommendations = [
            f"{tumor_type} detected with {max_confidence * 100:.1f}% confidence"
        ] + DETECTED_ADVICE
    else:
        recommendations = list(HEALTHY_ADVICE)

    return AnalysisResult(
        tumor_detected=detected,
        confidence=to_percent(max_confidence),
        tumor_level=tumor_level_for(detected, max_confidence),
        tumor_type=tumor_type,
        recommendations=tuple(recommendations[:MAX_RECOMMENDATIONS]),
        processing_time=float(processing_time),
        all_predictions=tuple(
            (name, to_percent(p)) for name, p in zip(CLASS_NAMES, probs)
        ),
        fallback_used=fallback_used,
    )


def create_pdf(result, file_name=None, created_at=None, report_id=None):
    """Render an AnalysisResult as a PDF and return the bytes."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    # Title
    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(width / 2, height - 2 * cm, "AI Brain Tumor Report")

    # Scan info
    c.setFont("Helvetica", 12)
    y = height - 4 * cm
    c.drawString(2 * cm, y, f"Report ID: {report_id or '-'}")
    c.drawString(2 * cm, y - 1 * cm, f"File: {file_name or '-'}")
    c.drawString(2 * cm, y - 2 * cm, f"Scanned On: {created_at or datetime.now()}")
    c.drawString(2 * cm, y - 3 * cm, f"Processing Time: {result.processing_time:.2f} s")

    # Result
    y -= 5 * cm
    c.setFont("Helvetica-Bold", 14)
    c.drawString(2 * cm, y, "Diagnosis")

    c.setFont("Helvetica", 12)
    status = "Tumor Detected" if result.tumor_detected else "No Tumor Detected"
    c.drawString(2 * cm, y - 1 * cm, status)
    c.drawString(2 * cm, y - 2 * cm, f"Tumor Type: {result.tumor_type}")
    c.drawString(2 * cm, y - 3 * cm, f"Confidence: {result.confidence}%")
    c.drawString(2 * cm, y - 4 * cm, f"Tumor Level: {result.tumor_level}")

    # Probabilities
    y -= 6 * cm
    c.setFont("Helvetica-Bold", 14)
    c.drawString(2 * cm, y, "Class Probabilities")

    c.setFont("Helvetica", 12)
    offset = 1
    for name, pct in result.all_predictions:
        c.drawString(2 * cm, y - offset * cm, f"{name}: {pct}%")
        offset += 1

    # Recommendations
    y -= (offset + 1) * cm
    c.setFont("Helvetica-Bold", 14)
    c.drawString(2 * cm, y, "Recommendations")

    c.setFont("Helvetica", 11)
    text = c.beginText(2 * cm, y - 1 * cm)
    for rec in result.recommendations:
        text.textLine(f"- {rec}")
    c.drawText(text)

    # AI Summary
    c.showPage()
    c.setFont("Helvetica-Bold", 14)
    c.drawString(2 * cm, height - 2 * cm, "AI Summary")

    c.setFont("Helvetica", 11)
    text = c.beginText(2 * cm, height - 3 * cm)
    summary = AI_SUMMARY.get(result.tumor_type, "Clinical correlation required.")
    for line in summary.split(". "):
        text.textLine(line.strip())
    if result.fallback_used:
        text.textLine("")
        text.textLine("Note: rule-based heuristic result, not a trained model.")
    text.textLine("")
    text.textLine("This report is AI-assisted and must be reviewed by a certified radiologist.")
    c.drawText(text)

    c.save()
    return buf.getvalue()
