from setuptools import setup, find_packages

setup(name='fibrio',
      version='0.1.0',
      description='Suspendable functions: write sequential code, run it on coroutines resumed by callbacks',
      classifiers=[
          "Programming Language :: Python :: 3",
          "License :: OSI Approved :: MIT License",
          "Framework :: Trio",
      ],
      keywords='coroutine greenlet async await trio',
      license='MIT',
      packages=find_packages(include=['fibrio', 'fibrio.*']),
      python_requires='>=3.11',
      install_requires=[
          'trio',
          'outcome',
          'greenlet',
      ],
      extras_require={
          'test': ['pytest'],
      },
)
