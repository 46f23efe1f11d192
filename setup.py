#!/usr/bin/env python3
"""
Setup script for the Credentials Portal backend

Install with:
    pip install -e .

Or with test tooling:
    pip install -e ".[dev]"
"""

from setuptools import setup, find_namespace_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

# API server dependencies
backend_requirements = [
    "fastapi>=0.110.0",
    "uvicorn[standard]>=0.27.0",
    "pydantic>=2.5.0",
    "pydantic-settings>=2.1.0",
    "email-validator>=2.1.0",
    "sqlalchemy[asyncio]>=2.0.25",
    "asyncpg>=0.29.0",
    "aiosqlite>=0.19.0",
    "bcrypt>=4.1.0",
    "python-jose[cryptography]>=3.3.0",
    "cryptography>=42.0.0",
    "aiosmtplib>=3.0.0",
    "slowapi>=0.1.9",
    "httpx>=0.26.0",
    "ldap3>=2.9.1",
]

setup(
    name="credportal",
    version="1.0.0",
    description="University credentials self-service portal: activation, password recovery, devices",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="UNISS Network Services",
    author_email="redes@uniss.edu.cu",
    license="MIT",
    package_dir={"": "backend"},
    packages=find_namespace_packages("backend", include=["app", "app.*"]),
    python_requires=">=3.9",
    install_requires=backend_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "faker>=22.0.0",
            "black>=24.1.0",
            "isort>=5.13.0",
            "mypy>=1.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "credportal-sync=app.jobs.password_sync:main",
            "credportal-expiry-alerts=app.jobs.password_expiry:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Systems Administration :: Authentication/Directory :: LDAP",
    ],
    keywords="ldap active-directory password-recovery self-service fastapi",
)
