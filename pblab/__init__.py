"""PBLab: problem-based-learning projects, phases, rubrics and assessments."""

__version__ = "1.0.0"
