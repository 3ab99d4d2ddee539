"""Tests for :mod:`markmorph_auth.services`."""
