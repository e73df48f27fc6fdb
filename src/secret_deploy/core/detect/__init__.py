"""Detecção de mudança de conteúdo entre runs."""

from .change_detector import ChangeDetector, ChangeKind, Classification

__all__ = ["ChangeDetector", "ChangeKind", "Classification"]
