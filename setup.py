from setuptools import setup, find_packages

setup(
    name="perizia-extractor",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "PyMuPDF>=1.23.0",
        "pdfplumber>=0.10.0",
        "openai>=1.3.0",
        "numpy>=1.24.0",
        "click>=8.1.0",
        "python-dotenv>=1.0.0",
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "python-multipart>=0.0.6",
        "pydantic>=2.5",
        "tenacity>=8.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "perizia-extract=perizia_extractor.cli:main",
        ],
    },
)
