#!/usr/bin/env python3
"""
Setup configuration for top-albums
Build a Top 50 albums list from Spotify, save it as a playlist and share it
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "spotipy>=2.22.1",
    "requests>=2.31.0",
    "pyyaml>=6.0.1",
    "tqdm>=4.66.1",
    "rich-click>=1.7.0",
    "python-dotenv>=1.0.0",
    "flask>=3.0.0",
]

setup(
    name="top-albums",
    version="0.1.0",
    author="top-albums Team",
    description="Build your Top 50 albums from Spotify, save it as a playlist and share it",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Environment :: Web Environment",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
        ],
    },
    entry_points={
        "console_scripts": [
            "top50=top_albums.cli:cli",
        ],
    },
    keywords="spotify albums top50 playlist share cli",
)
