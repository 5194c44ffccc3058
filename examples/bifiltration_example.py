# %%
import numpy as np

# SimplexTree is the central class of the package: it stores a bifiltered
# simplicial complex and extracts the matrices used in multi-parameter persistence
from bisimplex import SimplexTree
from bisimplex.gudhi_export import slice_to_gudhi


# %%
# noisy circle, points appear in three batches over time
rng = np.random.default_rng(35)
num_points = 40
angles = rng.uniform(low=0.0, high=2*np.pi, size=num_points)
points = np.column_stack((np.cos(angles), np.sin(angles))) + rng.normal(scale=0.05, size=(num_points, 2))
birth_times = rng.integers(0, 3, size=num_points).astype(float)


# %%
# build the Vietoris-Rips bifiltration, distances rounded up to multiples of 0.05
st = SimplexTree(print_info=True)
st.build_VR_complex(points, max_dist=0.6, max_dim=2, birth_times=birth_times, resolution=0.05)

print(st)
print("simplices per dimension:", st.num_simplices_by_dim())
print("time values:", st.times.values)
print("distance values:", st.dists.values)


# %%
# boundary matrix of the edges alive at time 1, halfway up the distance grid
time = st.time_index(1.0)
dist = st.get_num_dists() // 2
bd = st.get_boundary_mx(time, dist, dim=1)
print(f"boundary matrix at ({time}, {dist}): {bd.matrix}")
if bd.columns:
    print("boundary of edge", st.find_vertices(bd.columns[0]), "->", bd.matrix.column(0))


# %%
# merge and split matrices of the grid square with upper right corner (time, dist)
merge = st.get_merge_mx(time, dist, dim=1)
split = st.get_split_mx(time, dist, dim=1)
print("merge [B+C, D]:", merge.matrix)
print("split [A, B+C]:", split.matrix)


# %%
# one-parameter slice at the last time value, handed to Gudhi for ordinary persistence
gudhi_st = slice_to_gudhi(st, st.get_num_times() - 1)
gudhi_st.compute_persistence()
print("Betti numbers of the full slice:", gudhi_st.betti_numbers())
