import logging
from time import perf_counter

from sklearn.datasets import load_iris
from sklearn.model_selection import train_test_split

from pctbagging import PCTBClassifier

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

iris = load_iris()
feats = ["sepal_length", "sepal_width", "petal_length", "petal_width"]
X_tr, X_te, y_tr, y_te = train_test_split(iris.data, iris.target, test_size=0.3,
                                          stratify=iris.target, random_state=42)

clf = PCTBClassifier(
    n_samples=10, consolidation=50, priority_criteria="size",
    search_algorithm="hill_climbing", preserve_structure=False,
    random_state=42, feature_names=feats,
    show_base_trees="first_ten", show_explanation_measures=True,
    callback=lambda ev: print(f"[{ev.phase}] {ev.elapsed:.3f} s {ev.detail}"),
)

t0 = perf_counter(); clf.fit(X_tr, y_tr); print(f"fit: {perf_counter()-t0:.3f} s")
print(f"test accuracy: {clf.score(X_te, y_te):.3f}")
print(clf.summary())

print("Consolidated rules:")
for rule in clf.export_rules(class_names=list(iris.target_names)):
    print("  " + rule)

for name in ("num_inner_nodes", "avg_num_leaves", "avg_perc_structure"):
    print(f"{name}: {clf.get_measure(name):.2f}")

try:
    clf.export_graphviz("iris_consolidated", class_names=list(iris.target_names), format="dot")
except RuntimeError as e:
    print(f"Skipping Graphviz export: {e}")
