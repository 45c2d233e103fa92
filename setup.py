"""Setup script for facewatch package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="facewatch",
    version="0.1.0",
    description="Enroll people by face embeddings and announce them when they appear on camera",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="facewatch Team",
    packages=find_packages(exclude=["tests*", "docs*"]),
    python_requires=">=3.9",
    install_requires=[
        "insightface>=0.7.3",
        "onnxruntime>=1.16.3",
        "opencv-python>=4.9.0",
        "numpy>=1.26.0",
        "pandas>=2.2.0",
        "pillow>=10.3.0",
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "black",
            "flake8",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "facewatch-enroll=scripts.enroll_person:main",
            "facewatch-registry=scripts.manage_registry:main",
            "facewatch-watch=scripts.run_watch:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
