"""Setup script for the card checkout payment service."""

from setuptools import setup, find_packages

setup(
    name="card-checkout",
    version="0.1.0",
    description="Single-product card checkout with a payment saga and gateway reconciliation",
    author="ML Roadmap Bootcamp",
    python_requires=">=3.11",
    packages=find_packages(include=["card_checkout", "card_checkout.*"]),
    install_requires=[
        line.strip()
        for line in open("requirements.txt")
        if line.strip() and not line.startswith("#") and not line.startswith("git+")
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-mock>=3.11.0",
        ],
        "dev": [
            "black>=23.0.0",
            "isort>=5.12.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "card-checkout=card_checkout.api.main:run",
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
