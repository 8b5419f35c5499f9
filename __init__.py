"""
Hoeffding Forest

A forest of streaming Hoeffding trees trained one sample at a time. Each tree
sees a fixed subset of the input dimensions, online bagging replicates every
incoming sample a Poisson(1) number of times per tree, and predictions are
combined by plurality vote or averaged class probabilities.
"""
