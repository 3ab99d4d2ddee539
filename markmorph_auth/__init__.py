"""
Authentication core for the Mark Morph platform.

Covers e-mail one-time passcodes, signup and login against an external
identity provider, guest Wi-Fi access, username allocation, and the access
and refresh tokens issued to users. :func:`.factory.create_app` exposes it as
a JSON API.
"""
