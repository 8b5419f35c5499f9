from setuptools import setup

setup(
    name='hoeffding-forest',
    version='1.0',
    py_modules=[
        'binarize',
        'binning',
        'dataset_info',
        'dimension_selector',
        'errors',
        'hoeffding_forest',
        'hoeffding_tree',
        'online_bagging',
        'streaming_learner',
    ],
    description='Online-bagged forest of streaming Hoeffding trees',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=['numpy>=1.22'],
    extras_require={
        'test': ['pytest'],
        'experiments': ['scikit-learn'],
    },
)
