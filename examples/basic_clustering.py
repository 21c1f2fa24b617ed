#!/usr/bin/env python
# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Basic clustering example using KernelKMeans on a single worker.
"""

from kmkernel.clusterer import KernelKMeans


def main():
    # Create and train clustering model
    kmeans = KernelKMeans(
        k=4,
        numPoints=2000,
        dimension=2,
        minDistance=8000.0,
        seed=42,
    )

    print("Training model...")
    model = kmeans.fit()

    # Display cluster centers
    print(f"\nNumber of clusters: {model.numClusters}")
    print(f"Number of features: {model.numFeatures}")
    print("\nCluster centers:")
    for i, center in enumerate(model.clusterCenters()):
        print(f"  Cluster {i}: {center}")

    # Cluster sizes
    print("\nCluster sizes:")
    for i in range(model.numClusters):
        print(f"  Cluster {i}: {int((model.assignments == i).sum())} points")

    # Compute clustering cost (WCSS)
    cost = model.computeCost()
    print(f"\nWithin-cluster sum of squares: {cost:.4f}")

    # Training summary
    print()
    print(model.summary.convergenceReport())

    # Predict cluster for a new point
    new_point = [1000.0, 60000.0]
    cluster = model.predict(new_point)
    print(f"\nNew point {new_point} assigned to cluster: {cluster}")


if __name__ == "__main__":
    main()
