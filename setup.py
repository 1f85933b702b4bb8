"""Setup configuration for Flock Ledger."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="flock-ledger",
    version="0.1.0",
    author="Kent Gale",
    author_email="kentgale@gmail.com",
    description="Poultry cycle lifecycle and sales reconciliation ledger",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["flockledger", "flockledger.*"]),
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Intended Audience :: Developers",
        "Topic :: Office/Business :: Financial :: Accounting",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "flockledger=flockledger.utils.ledger_cli:main",
        ],
    },
)
