"""Tests for :mod:`markmorph_auth`."""
