"""This script compares the two refinement presets on a sparse lattice and a
dense random graph, then mimics one branching step by removing a vertex and
reusing the refined order on the reduced graph.
"""

import networkx as nx
import tensorbranching as tb


graphs = {
    "grid": nx.convert_node_labels_to_integers(nx.grid_2d_graph(10, 10)),
    "dense": nx.erdos_renyi_graph(40, 0.4, seed=666),
}

for name, g in graphs.items():
    code, size_dict = tb.independent_set_expression(g)
    cc0 = tb.contraction_complexity(code, size_dict)
    structure = tb.estimate_structure(g)
    print(f"{name}: {structure}, initial {tb.describe(code, size_dict)}")

    # ------------------ STAGE 1: refine with each preset ------------------ #

    for preset in (tb.TreeSARefiner, tb.RankSARefiner):
        info = {}
        refined = tb.refine(
            code,
            size_dict,
            preset(ntrials=4, niters=20),
            sc_target=cc0.sc - 2,
            current_sc=cc0.sc,
            seed=666,
            parallel=True,
            info=info,
            progbar=True,
        )
        print(
            f"    {preset.keywords['max_rounds']} rounds, "
            f"escalated={info['escalated']}, "
            f"{tb.describe(refined, size_dict)}"
        )

    # ---------- STAGE 2: branch on a vertex and reuse the order ----------- #

    v = max(g, key=g.degree)
    g_new, vmap = tb.induced_subgraph(g, [u for u in g if u != v])
    code_new = tb.update_code(g_new, refined, vmap)
    size_dict_new = tb.independent_set_network(g_new).size_dict
    print(f"    removed {v}: {tb.describe(code_new, size_dict_new)}")

    arrays = tb.independent_set_tensors(g_new, "tropical")
    mis = tb.contract_expression(code_new, arrays, semiring="tropical")
    print(f"    MIS size of reduced graph: {float(mis)}")
