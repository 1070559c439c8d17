from setuptools import setup, find_packages

setup(
    name="ui-flow-capture",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    install_requires=[
        "numpy",
        "opencv-python",
        "pyyaml",
        "python-dotenv"
    ],
    extras_require={
        "test": ["pytest"]
    },
)
