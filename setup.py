"""Setup script for the Docker log dashboard"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="docker-log-dashboard",
    version="0.1.0",
    author="Docker Log Dashboard",
    author_email="admin@localhost.local",
    description="A minimal dashboard that streams live Docker container logs to the browser",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["logdash", "logdash.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Monitoring",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100",
        "uvicorn[standard]>=0.23",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "docker>=7.0",
        "requests>=2.31",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.25",
        ],
    },
    entry_points={
        "console_scripts": [
            "logdash=logdash.main:run",
        ],
    },
)
