"""
Prompt Mixer

Composes creative prompts from independently maintained libraries of
candidate values (scene, style, subject, ...) by weighted random sampling or
cartesian enumeration, and keeps the local library collection in sync with a
remotely edited source of truth.

Usage:
    prompt-mixer init
    prompt-mixer import scenes.tsv --mode merge-add
    prompt-mixer preview --count 4
    prompt-mixer sync ./sheets
"""

__version__ = "0.1.0"
__author__ = "Prompt Mixer"
