from setuptools import setup, find_packages


setup(
    name="chronovault",
    version="0.1",
    packages=find_packages(include=["chronovault", "chronovault.*"]),
    description="Tamper-evident encrypted chunk storage with Merkle commitments and local or IPFS backends.",
    author="vercingetorx",
    python_requires=">=3.9",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "requests>=2.31.0",
        "urllib3>=2.0.0",
        "fastapi>=0.110.0",
        "pydantic>=2.0.0",
        "python-multipart>=0.0.9",
        "uvicorn>=0.29.0",
    ],
    extras_require={
        "test": [
            "httpx>=0.27.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chronovault=chronovault.cli:main",
        ]
    },
)
