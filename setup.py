from setuptools import find_packages, setup

setup(
    name="streamtree",
    version="0.1.0",
    description="Binary decision tree classifier with stream-parallel split search (Torch)",
    packages=find_packages(include=["streamtree", "streamtree.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
        "scikit-learn",
    ],
    extras_require={
        "test": ["pytest", "pandas"],
    },
)
