"""Health self-screening core.

Signal conditioning and rPPG vital signs, hearing and vision scoring.
"""

__all__ = [
    "preprocess",
    "spectrum",
    "peaks",
    "quality",
    "measurements",
    "calibration",
    "heart_rate",
    "hrv",
    "spo2",
    "blood_pressure",
    "respiration",
    "roi",
    "engine",
    "hearing",
    "audiometry",
    "audio_calibration",
    "vision",
    "photoscreen",
]

__version__ = "0.1.0"
