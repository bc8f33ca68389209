"""Labelling managers with init fallback, mode resolution and MIG attribute helpers."""