"""
Somatic Scan

Guided four-stage posture capture, biomechanical metric extraction and
multi-modality somatic pattern classification.
"""
__version__ = "0.1.0"
