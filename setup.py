"""Setup configuration for the MTO floor predictor."""
from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="mto-floor-predictor",
    version="1.0.0",
    description="Conservative total-score floors from fused schedule and odds feeds",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Green Bier Ventures",
    python_requires=">=3.11",
    packages=find_packages(where=".", include=["mto", "mto.*", "scripts"]),
    package_dir={"": "."},
    install_requires=[
        "httpx>=0.27.2",
        "python-dotenv>=1.0.1",
        "pyyaml>=6.0.2",
        "numpy>=1.26.4",
        "pydantic>=2.9.2",
        "tenacity>=9.0.0",
        "tzdata>=2024.1",
    ],
    extras_require={
        "dev": [
            "pytest>=8.3.3",
            "pytest-asyncio>=0.24.0",
            "fastapi>=0.115.0",
            "black",
            "flake8",
            "mypy",
        ],
        "api": [
            "fastapi>=0.115.0",
            "uvicorn[standard]>=0.31.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mto-slate=scripts.predict_slate:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
