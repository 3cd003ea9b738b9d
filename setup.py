from setuptools import setup, find_packages

setup(
    name='decision-forest',
    version='1.0',
    packages=find_packages(exclude=['tests']),
    py_modules=[
        'binning',
        'bootstrap',
        'errors',
        'forest_params',
        'forest_trainer',
        'inference',
        'oob',
        'split_search',
        'tree_builder',
        'validation',
        'variable_importance',
    ],
    description='Random forest classification with out-of-bag error and variable importance',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=[
        'numpy>=1.22',
        'joblib>=1.2',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
