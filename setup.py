"""
Setup script for flowbridge
"""
from setuptools import setup, find_packages

setup(
    name="flowbridge",
    version="0.1.0",
    packages=find_packages(include=["flowbridge", "flowbridge.*"]),
    install_requires=[
        "fastapi>=0.115.0",
        "uvicorn>=0.30.0",
        "pydantic>=2.8.0",
        "python-dotenv>=1.0.1",
        "httpx>=0.27.0",
        "python-multipart>=0.0.9",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    description="flowbridge - Resilient HTTP and webhook connectors for workflow nodes",
    author="SynApps Team",
    author_email="synapps.info@nxtg.ai",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
