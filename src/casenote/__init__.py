"""CaseNote: clinician case notes from typed text or transcribed scans."""

__version__ = "0.1.0"
