"""检测器训练通用工具函数。"""

import json
import random
import time
from datetime import datetime
from pathlib import Path

import numpy as np
from sklearn import metrics

from svm_detector.data.feature_extraction import extract_split_features
from tools.visualization import (
    plot_confusion_matrix,
    plot_roc_curve,
    plot_score_distribution,
    plot_weight_template,
)

from .config import DEFAULT_SAVE_PATHS
from .logger import Logger


def set_seed(seed):
    random.seed(seed)
    np.random.seed(seed)


def compute_classification_metrics(y_true, y_pred, y_proba=None, positive_label=1, zero_division='warn'):
    """计算分类任务的常用指标。

    参数:
        y_true: 真实标签数组，形状为(n_samples,)
        y_pred: 预测标签数组，形状为(n_samples,)
        y_proba: 正类的决策得分，形状为(n_samples,)（可选）
        positive_label: 正类标签（默认: 1）
        zero_division: 当出现除零时的处理方式（'warn'/0/1，默认: 'warn'）

    返回:
        dict: 指标字典，包含 accuracy、precision、recall、f1。提供得分且两类都出现时，还包含
            auc、average_precision 与 pr_curve（precision/recall/thresholds 列表）
    """
    result = {
        'accuracy': float(metrics.accuracy_score(y_true, y_pred)),
        'precision': float(metrics.precision_score(y_true, y_pred, pos_label=positive_label, zero_division=zero_division)),
        'recall': float(metrics.recall_score(y_true, y_pred, pos_label=positive_label, zero_division=zero_division)),
        'f1': float(metrics.f1_score(y_true, y_pred, pos_label=positive_label, zero_division=zero_division)),
        'n_samples': int(len(y_true)),
    }
    if y_proba is None or len(np.unique(y_true)) != 2:
        return result

    pos_scores = np.asarray(y_proba, dtype=float)
    y_binary = (np.asarray(y_true) == positive_label).astype(int)
    result['auc'] = float(metrics.roc_auc_score(y_binary, pos_scores))
    result['average_precision'] = float(metrics.average_precision_score(y_binary, pos_scores))
    precision_curve, recall_curve, thresholds = metrics.precision_recall_curve(y_binary, pos_scores)
    result['pr_curve'] = {
        'precision': [float(value) for value in precision_curve],
        'recall': [float(value) for value in recall_curve],
        'thresholds': [float(value) for value in thresholds],
    }
    return result


def evaluate_all_splits(classifier, datasets, verbose=True, logger=None):
    Logger.maybe_print(verbose, logger, '📊 评估模型...')
    results = {}
    for split_name in ['train', 'val', 'test']:
        X, y = datasets.get(split_name, (None, None))
        if X is not None and y is not None:
            results[split_name] = classifier.evaluate(y, X, name=split_name.capitalize())
        else:
            results[split_name] = None
    return results


def build_config(args, extractor, svm_params):
    return {
        'data': {
            'data_dir': getattr(args, 'data_dir', 'dataset'),
            'train_dirname': getattr(args, 'train_dirname', 'train'),
            'val_dirname': getattr(args, 'val_dirname', 'val'),
            'test_dirname': getattr(args, 'test_dirname', 'test'),
        },
        'feature': extractor.to_dict(),
        'svm': svm_params.to_dict(),
        'runtime': {
            'n_jobs': getattr(args, 'n_jobs', None),
            'seed': getattr(args, 'seed', 42),
            'scale_features': bool(getattr(args, 'scale_features', False)),
            'timestamp': datetime.now().isoformat(),
        },
    }


def save_training_results(results_path, results, config=None, model_info=None, logger=None):
    """把训练配置、模型概要与评估结果写入 JSON。"""
    results_path = Path(results_path)
    results_path.parent.mkdir(parents=True, exist_ok=True)
    results_data = {
        'timestamp': datetime.now().isoformat(),
        'model_info': model_info or {},
        'results': results,
    }
    if config is not None:
        results_data['config'] = config
    with open(results_path, 'w', encoding='utf-8') as f:
        json.dump(results_data, f, indent=2, ensure_ascii=False, default=str)
    Logger.maybe_print(True, logger, '📝 训练配置与结果已保存: {}'.format(results_path))
    return results_path


def run_detector_training(args, classifier_class, extractor, svm_params, logger=None):
    """完整训练流程：提取各分割特征 -> 训练 -> 评估 -> 可视化 -> 保存模型、特征配置与结果。

    参数:
        args: 命令行参数（需要 data_dir/train_dirname/val_dirname/test_dirname/
            positive_dirname/negative_dirname/n_jobs/seed/save_path/cache_dir）
        classifier_class: 分类器类（例如 LinearClassifier）
        extractor: FeatureExtractor 实例
        svm_params: SVMConfig

    返回:
        tuple: ``(classifier, results)``
    """
    set_seed(args.seed)
    start_time = time.time()
    logger = logger or Logger(name="detector_training")
    logger.info('🧪 特征: {} | SVM: {}'.format(extractor, svm_params.to_dict()))

    datasets = {}
    for split_key, split_name in [('train', args.train_dirname), ('val', args.val_dirname), ('test', args.test_dirname)]:
        datasets[split_key] = extract_split_features(
            extractor,
            args.data_dir,
            split_name,
            positive_dirname=args.positive_dirname,
            negative_dirname=args.negative_dirname,
            n_jobs=args.n_jobs,
            cache_dir=getattr(args, 'cache_dir', None),
        )
    X_train, y_train = datasets['train']
    if not X_train:
        raise RuntimeError('训练集为空或加载失败')

    if getattr(args, 'scale_features', False):
        # 只在训练集上拟合，参数随 feature.json 一起保存
        extractor.fit_scaler(X_train)
        for split_key, (X, y) in list(datasets.items()):
            if X is not None:
                datasets[split_key] = (extractor.scale(X), y)
        logger.info('📏 特征已按通道标准化: {}'.format(extractor.get_scaling()))
        X_train, y_train = datasets['train']

    logger.info('🔧 训练线性 SVM: {} 个样本'.format(len(X_train)))
    classifier = classifier_class(params=svm_params)
    classifier.logger = logger
    classifier.train(y_train, X_train)
    logger.log_model_summary(classifier)

    results = evaluate_all_splits(classifier, datasets, logger=logger)
    save_path = Path(args.save_path)
    _generate_visualizations(classifier, extractor, datasets, save_path.parent / 'figures', logger)

    classifier.save(save_path)
    feature_path = save_path.parent / Path(DEFAULT_SAVE_PATHS['feature']).name
    extractor.save_to_file(feature_path)
    logger.info('💾 特征配置已保存至: {}'.format(feature_path))
    model_info = {
        'kernel': classifier.model.kernel,
        'descriptor_shape': list(classifier.model.descriptor_shape),
        'n_support': classifier.model.n_support,
        'bias': classifier.get_bias_term(),
    }
    save_training_results(
        save_path.parent / 'training_results.json',
        results,
        config=build_config(args, extractor, svm_params),
        model_info=model_info,
        logger=logger,
    )
    logger.summary(save_path, time.time() - start_time)
    return classifier, results


def _generate_visualizations(classifier, extractor, datasets, figures_dir, logger):
    figures_dir = Path(figures_dir)
    figures_dir.mkdir(parents=True, exist_ok=True)
    positive_label = classifier.model.classes[-1]
    negative_label = classifier.model.classes[0]
    for split in ['train', 'val', 'test']:
        X, y = datasets.get(split, (None, None))
        if X is None or y is None:
            continue
        scores = classifier.predict_batch(X)
        y_pred = np.where(scores >= 0, positive_label, negative_label)
        cm = metrics.confusion_matrix(y, y_pred, labels=[negative_label, positive_label])
        plot_confusion_matrix(
            cm,
            class_names=['negative', 'positive'],
            title="{} confusion".format(split.capitalize()),
            save_path=figures_dir / "{}_confusion.png".format(split),
        )
        plot_score_distribution(
            y, scores, pos_label=positive_label,
            title="{} scores".format(split.capitalize()),
            save_path=figures_dir / "{}_scores.png".format(split),
        )
        if len(np.unique(y)) == 2:
            plot_roc_curve(
                y, scores, pos_label=positive_label,
                title="{} ROC".format(split.capitalize()),
                save_path=figures_dir / "{}_roc.png".format(split),
            )
    if classifier.model.is_linear:
        try:
            positive, negative = classifier.render_weights(extractor)
        except NotImplementedError as exc:
            logger.debug("跳过权重模板可视化: {}".format(exc))
        else:
            plot_weight_template(positive, negative, title="SVM weights", save_path=figures_dir / "weights.png")
