"""Install the Mark Morph authentication package."""

from setuptools import setup, find_packages

setup(
    name='markmorph-auth',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    python_requires='>=3.8',
    install_requires=[
        "flask",
        "sqlalchemy>=1.4",
        "python-dateutil",
        "pytz",
        "pyjwt>=2.0",
        "redis>=4.1",
        "requests",
        "python-json-logger",
        "celery>=5.2",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
        ]
    },
    zip_safe=False
)
