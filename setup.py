from setuptools import setup, find_packages

setup(
    name="vmtb-redaction",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    py_modules=["canvas_component", "wizard_state"],
    install_requires=[
        "numpy>=1.24.0",
        "Pillow>=10.0.0",
        "pymupdf>=1.24.0",
        "streamlit>=1.30.0",
        "streamlit-drawable-canvas>=0.9.3,<0.13",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
)
